"""
Allow running rtsp_client with python -m
"""

from .cli import main

if __name__ == '__main__':
    main()
