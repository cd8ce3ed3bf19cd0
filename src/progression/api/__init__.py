"""REST API for the progression engine"""
