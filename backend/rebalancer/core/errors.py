"""业绩计算相关异常"""


class RebalancerError(Exception):
    """所有业务异常的基类"""


class NoChainDataError(RebalancerError):
    """采集后没有任何可用的链数据，当天的业绩计算需要跳过"""

    def __init__(self, message: str = "没有可用的链数据，无法计算业绩") -> None:
        super().__init__(message)


class ChainDataError(RebalancerError):
    """单条链的数据获取失败（调用方通过排除该链来恢复）"""

    def __init__(self, chain_name: str, reason: str) -> None:
        super().__init__(f"{chain_name}: {reason}")
        self.chain_name = chain_name
        self.reason = reason


class OracleUnavailableError(RebalancerError):
    """资金池价值预言机不可用（调用方使用备用规模）"""


class PersistenceConflictError(RebalancerError):
    """写入每日业绩时发生冲突，由调度层重试"""
