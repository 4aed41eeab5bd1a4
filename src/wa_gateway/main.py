"""Command-line entrypoint serving the gateway API."""

import os

import uvicorn


def main() -> None:
    """Run the API with uvicorn on HOST/PORT."""
    uvicorn.run(
        "wa_gateway.api.asgi:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )


if __name__ == "__main__":
    main()
