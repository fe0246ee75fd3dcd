import argparse

import uvicorn

from utils.logger import get_logger

log = get_logger("runner")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Signal fund proxy")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=4000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    args = parser.parse_args(argv)

    log.info("starting proxy on %s:%s", args.host, args.port)
    uvicorn.run("api.app:create_app", factory=True, host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
