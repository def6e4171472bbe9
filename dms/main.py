from dms.configs.settings import settings
from dms.configs.setup import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("dms.main:app", host=settings.app_host, port=settings.app_port, reload=settings.APP_ENV == "dev")
