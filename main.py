# main.py
from receipt_export.api.app import create_app
from receipt_export.config import settings

app = create_app(settings)

# ---------- Run ----------

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info"
    )
