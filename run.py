import logging

from foodroulette import create_app

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()

if __name__ == "__main__":
    # debug=True only for development
    app.run(host="127.0.0.1", port=5000, debug=True)
