"""Entry point: python -m stategraph [port]"""
import logging
import sys
import webbrowser
from stategraph.app import create_app
from stategraph.config import load_settings


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")
    settings = load_settings(sys.argv)

    app = create_app(settings=settings)
    print(f"Starting state graph visualizer at http://localhost:{settings.port}")
    webbrowser.open(f"http://localhost:{settings.port}")
    app.run(debug=True, port=settings.port, use_reloader=False)


if __name__ == "__main__":
    main()
