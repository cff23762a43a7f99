import logging

import uvicorn

from .core.config import settings


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run("cotacoes_frete.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
