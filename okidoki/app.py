"""
OkiDoki - PRD generation with selection-anchored AI text improvement.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS

from okidoki import config
from okidoki.config import log_event
from okidoki.routes import api


def create_app() -> Flask:
    app = Flask(__name__)
    CORS(app)
    app.register_blueprint(api)
    return app


def main():
    port = int(os.getenv("PORT", 5050))
    app = create_app()
    log_event(
        logging.INFO,
        "server_startup",
        gemini_ready=config.gemini_available,
        documents_dir=str(config.DOCUMENTS_DIR),
        port=port,
    )

    print(f"""
    ╔═══════════════════════════════════════════════════╗
    ║      OKIDOKI - PRD Writer                         ║
    ╠═══════════════════════════════════════════════════╣
    ║   Gemini:          {'Ready' if config.gemini_available else 'No API Key':<31}║
    ║   Server:          http://localhost:{port:<14}║
    ╚═══════════════════════════════════════════════════╝
    """)
    app.run(debug=config.LOG_LEVEL == "DEBUG", port=port, threaded=True)


if __name__ == '__main__':
    main()
