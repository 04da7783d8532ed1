import sys
import os

# Allow running from a checkout without installing the package.
repo_src_path = os.path.join(os.path.dirname(__file__), "src")
if repo_src_path not in sys.path:
    sys.path.insert(0, repo_src_path)

from ssid_locator.macos.cli import main

if __name__ == "__main__":
    sys.exit(main())
