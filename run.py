#!/usr/bin/env python3
"""
Fund Management Dashboard

Launch the Streamlit allocation and rebalancing dashboard. Any extra
command-line arguments are passed through to `streamlit run`
(e.g. `python run.py --server.port 8600`).
"""

import subprocess
import sys
from pathlib import Path

from config import DASHBOARD_PORT

APP_PATH = Path(__file__).resolve().parent / "app.py"


def build_command(extra_args=None):
    """Streamlit command line for the dashboard; later flags override the defaults."""
    return [
        sys.executable, "-m", "streamlit", "run", str(APP_PATH),
        "--server.port", str(DASHBOARD_PORT),
        "--server.headless", "true",
        "--browser.gatherUsageStats", "false",
        *(extra_args or []),
    ]


def main(argv=None):
    """Launch the Fund Management Streamlit app."""
    extra_args = sys.argv[1:] if argv is None else argv

    print("🚀 Starting Fund Management Dashboard...")
    print("   Inverse-vol / Kelly blend with rule-based rebalancing")
    print(f"   Access the app at: http://localhost:{DASHBOARD_PORT}")
    print()

    try:
        subprocess.run(build_command(extra_args), check=True)
    except KeyboardInterrupt:
        print("\n👋 Dashboard stopped by user")
    except FileNotFoundError:
        print("❌ Error: Python executable not found while launching Streamlit")
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        print(f"❌ Streamlit exited with an error: {e}")
        print("   Is it installed? pip install streamlit")
        sys.exit(1)


if __name__ == "__main__":
    main()
