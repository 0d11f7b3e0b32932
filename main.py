import uvicorn

from temp_mail_relay.logger import configure_logging
from temp_mail_relay.server import build_app
from temp_mail_relay.settings import load_settings


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(str(settings["log_level"]))
    app = build_app(settings)
    uvicorn.run(app, host=str(settings["http_host"]), port=int(settings["http_port"]))
