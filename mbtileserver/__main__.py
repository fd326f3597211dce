"""Run the tile server: ``python -m mbtileserver``."""

from mbtileserver.main import run

if __name__ == "__main__":
    run()
