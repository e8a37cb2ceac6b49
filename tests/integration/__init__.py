"""
集成测试（integration tests）

说明：
- 该目录下的测试可能依赖真实网络（GitHub/HuggingFace/ModelScope）或本地临时 HTTP server。
- 测试语义为“真实跑通才算通过”：网络/代理/目标端不可达等情况应视为失败。
"""
