#!/usr/bin/env python3
"""
SNITAP - Main Entry Point
Validate the configuration, then run the connections terminal UI
"""
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from SNITAP.config import ENV_PREFIX, load_settings
from SNITAP.UI import run_app


def main(env_file: Optional[str] = None) -> int:
    """
    Load settings and start the UI

    Returns:
        Process exit code (2 for invalid configuration)
    """
    try:
        settings = load_settings(env_file)
    except ValidationError as e:
        print("Invalid SNITAP configuration:")
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            print(f"  {ENV_PREFIX}{field.upper()}: {error['msg']}")
        return 2

    print(f"Starting SNITAP on {settings.feed_url}")
    print(f"Logs: {settings.log_dir}")
    print("Press 'q' to quit, 'p' to pause, 'ctrl+x' to clear, '1'-'6' to sort, 'end' for latest")
    print("-" * 80)

    try:
        run_app(settings)
    except KeyboardInterrupt:
        print("\nSNITAP terminated by user")
    except Exception as e:
        print(f"\nError running SNITAP: {e}")
        import traceback
        traceback.print_exc()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
