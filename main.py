#!/usr/bin/env python3
"""
DNS Bridge - 主程序入口

用法：
    python main.py --help
"""

from dnsbridge.cli import main

if __name__ == "__main__":
    main()
