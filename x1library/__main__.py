"""
Entry point for running as module: python -m x1library
"""

from .cli import main


if __name__ == '__main__':
    main()
