"""
Illustrated answer pipeline.

This package orchestrates:
1. Search term generation (Gemini)
2. Parallel image search and metadata lookup (Wikimedia Commons)
3. Size-budgeted image admission with SVG rasterization
4. Vision model answer generation (relay first, then direct)
5. Placeholder resolution and final markup rendering
"""
