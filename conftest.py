"""
pytest 根目录标记，使平铺布局的包在未安装时也能被测试导入
"""
