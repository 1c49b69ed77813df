from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Solana RPC
    rpc_endpoint: str = "https://api.mainnet-beta.solana.com"
    rpc_timeout_sec: float = 30.0

    # Keys (base58) — NEVER LOG THESE
    private_key: str = ""  # treasury: funds buyers, pays LUT rent, receives sweep
    creation_key: str = ""  # creator: signs token creation + creator buy
    buyer_wallet: str = ""  # extra wallet swept by `gather`

    # Distribution
    distribution_wallet_num: int = 6  # 7+ no longer fits one distribution TX
    swap_amount: float = 0.01  # SOL each buyer spends on launch
    margin_min: float = 0.010  # random extra SOL per buyer: two ATA rents + batch fees
    margin_max: float = 0.014
    distribution_overhead_sol: float = 0.05
    buyer_amount: float = 0.01  # creator's own buy in SOL

    # Jito block engine
    jito_fee: float = 0.001  # tip in SOL
    jito_block_engine_urls: str = (
        "https://mainnet.block-engine.jito.wtf,"
        "https://amsterdam.mainnet.block-engine.jito.wtf,"
        "https://frankfurt.mainnet.block-engine.jito.wtf,"
        "https://ny.mainnet.block-engine.jito.wtf,"
        "https://tokyo.mainnet.block-engine.jito.wtf"
    )
    bundle_timeout_sec: int = 60
    simulate_bundle: bool = True  # log simulation of every bundle tx before sending

    # Jupiter (sweep sells)
    jupiter_api_url: str = "https://quote-api.jup.ag/v6"
    jupiter_api_key: str = ""
    jupiter_max_rps: float = 1.0
    slippage_bps: int = 1000  # 10%
    priority_fee_lamports: int = 600_000

    # Token metadata
    token_name: str = ""
    token_symbol: str = ""
    description: str = ""
    twitter: str = ""
    telegram: str = ""
    website: str = ""
    token_image_path: str = "./image/token.png"
    token_create_on: str = "https://bonk.fun"
    token_decimals: int = 6

    # Vanity mint address
    vanity_mode: bool = False
    vanity_suffix: str = "bonk"
    vanity_max_attempts: int = 5_000_000

    # Persisted keys / LUT / bundle state
    data_dir: str = "./data"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # JSON lines on stdout and in the log file
    log_dir: str = "./logs"

    # Sweep pacing
    wallet_stagger_ms: int = 50
    sell_settle_sec: float = 1.0
    creator_sell_delay_sec: float = 10.0

    # External volume bot
    volume_bot_enabled: bool = True
    volume_bot_dir: str = "../raydium-volume-bot-latest"
    volume_bot_command: str = "npx ts-node index.ts"
    volume_bot_gather_command: str = "npx ts-node gather.ts"
    volume_bot_env_key: str = "TOKEN_MINT"
    vol_bot_timeout_sec: int = 600  # 10 min then SIGTERM

    @property
    def block_engine_urls(self) -> list[str]:
        return [u.strip() for u in self.jito_block_engine_urls.split(",") if u.strip()]


settings = Settings()
