"""
测试用示例应用

按约定划分模块路径：
- sample_app.models      实体
- sample_app.dals        数据访问层（自动注册）
- sample_app.interfaces  业务接口
- sample_app.blls        业务实现（与接口按名称配对注册）
"""
