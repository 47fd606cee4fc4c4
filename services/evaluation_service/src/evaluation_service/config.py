from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    port: int = 8003
    data_dir: str = "/data"
    assessment_service_url: str = "http://assessment-service:8004"

    # Judge0-compatible execution sandbox
    sandbox_url: str = "https://judge0-ce.p.rapidapi.com"
    sandbox_api_key: str = ""
    sandbox_api_host: str = "judge0-ce.p.rapidapi.com"
    sandbox_timeout: float = 10.0

    # OpenAI-compatible chat endpoint used by the classifier and the judge
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    classifier_enabled: bool = False
    classifier_timeout: float = 15.0
    judge_timeout: float = 20.0

    # similarity
    similarity_weights: dict[str, float] = {
        "surface": 0.20,
        "deep": 0.20,
        "token_jaccard": 0.20,
        "fingerprint": 0.20,
        "levenshtein": 0.10,
        "trigram": 0.10,
    }
    match_threshold: float = 15.0

    # authorship fusion: heuristic share, classifier share
    heuristic_weight: float = 0.6
    classifier_weight: float = 0.4

    # output comparison
    numeric_tolerance: float = 1e-4
    containment_ratio: float = 0.9

    # score allocations, fractions of max marks
    score_weights: dict[str, float] = {
        "tests": 0.50,
        "logic": 0.10,
        "quality": 0.10,
        "plagiarism": 0.15,
        "authorship": 0.10,
        "focus_loss": 0.05,
    }
    focus_loss_saturation: int = 5

    # stage 2 retries while the integrity report is missing
    score_max_attempts: int = 5
    score_retry_backoff: float = 1.0

    @property
    def db_url(self) -> str:
        return f"sqlite:///{self.data_dir.rstrip('/')}/evaluation_service.db"


settings = Settings()
