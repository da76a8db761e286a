"""
AI Media Studio
FastAPI back-end for prompt-driven image, video and speech generation
"""

__version__ = "0.1.0"
