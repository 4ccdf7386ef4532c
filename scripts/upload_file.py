"""Upload a local file through the chunked upload API."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import httpx

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.client import (
    CancelToken,
    ChunkScheduler,
    CoordinatorClient,
    LocalFileSource,
    UploadConfig,
    UploadProgress,
)
from src.utils.logger import configure_logging


def print_progress(progress: UploadProgress) -> None:
    print(
        f"  {progress.completed_chunks}/{progress.total_chunks} chunks ({progress.percentage}%)",
        flush=True,
    )


async def upload(path: str, base_url: str, token: str, part_size_mb: int, parallel: int) -> int:
    source = LocalFileSource(path)
    config = UploadConfig(part_size=part_size_mb * 1024 * 1024, max_parallel_uploads=parallel)
    timeout = httpx.Timeout(60.0, connect=10.0)

    async with httpx.AsyncClient(
        base_url=base_url,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
    ) as api_http, httpx.AsyncClient(timeout=timeout) as storage_http:
        api = CoordinatorClient(api_http, CancelToken())
        scheduler = ChunkScheduler(api, storage_http, source, config=config, on_progress=print_progress)

        # Ctrl+C cancels the upload and cleans up server-side state
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, scheduler.cancel)

        print(f"Uploading {source.name} ({source.size} bytes) as {scheduler.attempt.file_id}")
        result = await scheduler.start()

    if result.success:
        print(f"Upload complete: upload_id={result.upload_id}")
        return 0
    print(f"Upload {result.state.value}: {result.error}")
    return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Upload a file in chunks")
    parser.add_argument("path", help="File to upload")
    parser.add_argument("--base-url", default="http://localhost:8000/api", help="Upload API base URL")
    parser.add_argument("--token", required=True, help="Bearer access token")
    parser.add_argument("--part-size-mb", type=int, default=5, help="Part size in MB (S3 minimum is 5)")
    parser.add_argument("--parallel", type=int, default=3, help="Parts uploaded concurrently")
    args = parser.parse_args()

    configure_logging()
    sys.exit(asyncio.run(upload(args.path, args.base_url, args.token, args.part_size_mb, args.parallel)))
