"""Digi Studio 入口点。

支持: python -m digi_studio
"""

from .app import main

if __name__ == "__main__":
    main()
