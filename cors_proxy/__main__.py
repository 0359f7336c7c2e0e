import uvicorn

from cors_proxy.vars import HOST, PORT, LIMIT_CONCURRENCY


def main():
    uvicorn.run(
        "cors_proxy.server:app",
        host=HOST,
        port=PORT,
        limit_concurrency=LIMIT_CONCURRENCY,
    )


if __name__ == "__main__":
    main()
