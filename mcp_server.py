#!/usr/bin/env python3
"""
MCP Server for TestUp.
Provides tools for discovering and running test units and reading their coverage.
"""

import asyncio
import json
import logging
import os

from fastmcp import FastMCP

import core

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# FastMCP server
mcp = FastMCP("testup")

_run_lock = asyncio.Lock()


@mcp.tool(
    name="discover_tests",
    description="""List test categories and the test files in each.

    Categories are the immediate subdirectories of the configured tests root;
    each category lists its test files (not recursive) and whether it has an
    intro.html description.
    """
)
async def discover_tests() -> str:
    try:
        result = core.discover_tests()
        return json.dumps(result, indent=2)
    except Exception as e:
        logger.error(f"Error in discover_tests: {str(e)}")
        return json.dumps({"error": str(e)})


@mcp.tool(
    name="run_tests",
    description="""Run test files and return pass/fail/warn counts per file.

    Each file's console output is saved as <unit>_results.txt in a new results
    directory. Coverage is computed when the first file belongs to the coverage
    category, unless forced with the coverage argument.

    Args:
        categories: Comma-separated category names (optional, all categories if neither categories nor files given)
        files: Comma-separated test file paths, run in the given order (optional)
        coverage: Force API coverage on or off (optional)
    """
)
async def run_tests(categories: str = None, files: str = None, coverage: bool = None) -> str:
    try:
        category_list = [c.strip() for c in categories.split(",") if c.strip()] if categories else None
        file_list = [f.strip() for f in files.split(",") if f.strip()] if files else None
        # One batch at a time; tests share host state
        async with _run_lock:
            result = await asyncio.to_thread(core.run_tests, category_list, file_list, coverage)
        return json.dumps(result, indent=2, default=str)
    except Exception as e:
        logger.error(f"Error in run_tests: {str(e)}")
        return json.dumps({"error": str(e)})


@mcp.tool(
    name="get_coverage",
    description="""Compute API coverage for a results directory.

    Matches passed test methods against the reference list of Class.method
    entries and writes the coverage HTML page beside that list.

    Args:
        run: Results directory (optional, uses the latest run if not specified)
    """
)
async def get_coverage(run: str = None) -> str:
    try:
        result = core.get_coverage(run)
        return json.dumps(result, indent=2)
    except Exception as e:
        logger.error(f"Error in get_coverage: {str(e)}")
        return json.dumps({"error": str(e)})


@mcp.tool(
    name="list_results_runs",
    description="""List recent results directories, newest first.
    Args:
        limit: Maximum number of runs (default: 10)
    """
)
async def list_results_runs(limit: int = 10) -> str:
    result = core.list_runs(limit)
    return json.dumps(result, indent=2)


@mcp.tool(
    name="cleanup_results",
    description="""Delete old results directories, keeping the most recent ones.
    Args:
        keep_runs: Number of runs to keep (optional, uses TESTUP_KEEP_RUNS if not specified)
        dry_run: Only report what would be deleted (default: false)
    """
)
async def cleanup_results(keep_runs: int = None, dry_run: bool = False) -> str:
    try:
        result = core.cleanup_runs(keep_runs, dry_run)
        return json.dumps(result, indent=2)
    except Exception as e:
        logger.error(f"Error in cleanup_results: {str(e)}")
        return json.dumps({"error": str(e)})


# Cleanup schedule interval in seconds (0 disables it)
CLEANUP_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600"))


async def scheduled_cleanup():
    """Background task that periodically prunes old results directories."""
    while True:
        try:
            result = core.cleanup_runs()
            if "error" in result:
                logger.error(f"Cleanup failed: {result['error']}")
            else:
                logger.info(f"Cleanup complete: {len(result['runs_removed'])} runs removed")
        except Exception as e:
            logger.error(f"Error in scheduled cleanup: {e}", exc_info=True)
        logger.info(f"Scheduled cleanup: sleeping for {CLEANUP_INTERVAL_SECONDS} seconds until next run...")
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)


async def main():
    if CLEANUP_INTERVAL_SECONDS > 0:
        logger.info(f"Starting scheduled cleanup task (interval: {CLEANUP_INTERVAL_SECONDS}s)")
        asyncio.create_task(scheduled_cleanup())
    else:
        logger.info("Scheduled cleanup disabled (CLEANUP_INTERVAL_SECONDS=0)")

    port = int(os.getenv("FASTMCP_PORT", "8978"))
    await mcp.run_async(transport="sse", host="0.0.0.0", port=port)


if __name__ == "__main__":
    asyncio.run(main())
