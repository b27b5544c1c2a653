from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,  # 环境变量名不区分大小写
    )

    # 数据库配置（可选，默认使用 SQLite）
    database_url: str = "sqlite+aiosqlite:///./rebalancer.db"

    # 资金池总规模
    # 预言机不可用时使用的备用规模（美元）
    fallback_fund_size: float = Field(
        default=5_000_000,
        description="预言机不可用时使用的资金池规模（美元）",
        validation_alias="FALLBACK_FUND_SIZE",
    )
    oracle_url: str | None = None  # 资金池价值查询接口，未配置时直接使用备用规模
    oracle_timeout_seconds: float = 10.0

    # 基准分配（baseline_configuration 表中没有生效记录时使用）
    default_baseline_allocation: dict[str, float] = Field(
        default_factory=lambda: {
            "ethereum": 4_000_000,  # $4M (80%)
            "base": 1_000_000,  # $1M (20%)
        },
    )

    # 参与优化的链（按此顺序遍历，顺序会影响优化结果）
    enabled_chains: list[str] = Field(default_factory=lambda: ["ethereum", "base"])
    chain_fetch_timeout_seconds: float = 15.0

    # 优化器参数
    optimizer_move_amount: float = 100_000  # 每次在两条链之间移动的金额（美元）
    optimizer_max_iterations: int = 10
    optimizer_min_improvement: float = 1.0  # 最小收益提升阈值（美元/年）
    # fixed: 直接使用基准分配作为初始分配；scaled: 按资金流入流出后的可用资金等比缩放
    optimizer_seed_policy: Literal["fixed", "scaled"] = "fixed"

    # 每日业绩计算任务
    performance_job_hour: int = 0
    performance_job_minute: int = 30
    significant_differential_alert: float = 1_000  # 差值超过此金额时告警（美元）

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """
        自定义设置源优先级
        确保环境变量和 .env 文件都能正确读取
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,  # .env 文件
            file_secret_settings,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
