"""Run the web app: python -m campaign_scribe.api."""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "campaign_scribe.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
