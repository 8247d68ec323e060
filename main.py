#!/usr/bin/env python3
"""
Sheet Annotator MCP Server
Sheet-music utilities for a score library: title/composer extraction from
scanned or digital title pages, and export of PDFs with user annotations burned in.
"""

import logging

from sheet_annotator.core import paths
from sheet_annotator.tools.mcp_tools import mcp

# --- Basic Configuration ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("SheetAnnotator")


def main():
    args = paths.parse_arguments()
    logging.getLogger().setLevel(getattr(logging, args.log_level))
    paths.configure(args)

    logger.info("Starting Sheet Annotator MCP server")
    for directory in paths.SEARCH_DIRECTORIES:
        logger.info(f"  accessible: {directory}")
    mcp.run()


if __name__ == "__main__":
    main()
