"""
API 模块
FastAPI 依赖与应用入口
"""
