import asyncio
import logging
import sys

import httpx

from restbuilder import LoggingProgress, RestClient


def on_error(url: httpx.URL, status_code: int, body: str) -> str:
    print(f'Request to {url} failed with {status_code}: {body[:200]}')
    return '{"items":[]}'


async def main() -> int:
    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        url = input('Enter a URL to fetch: ').strip()
    else:
        url = sys.argv[1].strip()

    client = (
        RestClient.uri(url)
        .header('Accept', 'application/json')
        .retry(3)
    )

    exit_code = 1
    try:
        body = await client.get(on_error, progress=LoggingProgress())
        print(body)
        exit_code = 0
    except Exception as exc:
        print(f'Error fetching {url}, check your network connection {exc}')

    return exit_code

if __name__ == '__main__':
    sys.exit(
        asyncio.run(main())
    )
