"""
Business services for AI Media Studio
"""
