"""
模块入口

使用方式:
    python -m chronotype
"""

from .main import cli

if __name__ == "__main__":
    cli()
