"""
IRDesk Platform - API端点包
"""
