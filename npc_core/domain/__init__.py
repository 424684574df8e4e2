"""领域层模型。

包含：
- models: ChatMessage / ChatRequest / StreamFrame / FetchResult。
- structured: StructuredReply / Signal 以及完整解析、流式展示提取。
- exceptions: 业务异常类型定义。
"""
