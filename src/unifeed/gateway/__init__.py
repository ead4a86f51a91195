"""unifeed Gateway -- 统一消息流 HTTP 接口"""
