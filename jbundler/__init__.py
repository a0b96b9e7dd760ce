"""jbundler - jsonnet 依赖包 vendor 管理工具"""

__version__ = "0.6.0"
