#!/usr/bin/env python3
"""
S3 Presigner

Run this script to generate presigned URLs for an object key across the
S3-compatible providers in your configuration.

Usage:
    python run.py -k path/to/object.bin               # Presign a GET for every provider
    python run.py -k file.bin -m PUT -e 900           # Presign a PUT valid for 15 minutes
    python run.py -k file.bin -p b2,r2                # Specific providers
    python run.py -k file.bin --payload-file file.bin # Sign the payload hash
    python run.py -k file.bin -j urls.json            # Output JSON results
"""

import sys
from presigner.cli import main

if __name__ == "__main__":
    sys.exit(main())
