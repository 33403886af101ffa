#!/usr/bin/env python3
"""
Typr - dictation into any window

Usage:
    python run_typr.py {toggle,listen,serve,config,shortcuts}

Environment Variables:
    OPENAI_API_KEY          Used when the settings file has no apiKey
    TYPR_GESTURE_MODE       Listener gesture: 'hold' or 'chord'
    TYPR_DOUBLE_TAP_MS      Double-tap window in milliseconds (default 300)
    TYPR_OUTPUT_MODE        Output mode: 'type' or 'clipboard'
    TYPR_REWRITE_MODE       LLM rewrite: 'directive', 'always' or 'never'
    TYPR_VERBOSE            Enable verbose logging: '1' or 'true'
"""

from typr.__main__ import main

if __name__ == "__main__":
    raise SystemExit(main())
