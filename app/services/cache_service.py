"""
試験プロトコルIDキャッシュサービス
TTL付きメモリキャッシュで trial_id → protocol_id の解決結果を保存
"""

import threading
from typing import Optional, Dict, Any
from cachetools import TTLCache

from app.config import settings


class ProtocolCacheService:
    """試験プロトコルIDのメモリキャッシュ"""

    DEFAULT_TTL = settings.PROTOCOL_CACHE_TTL_SECONDS
    # 最大キャッシュ数: 1000試験
    DEFAULT_MAX_SIZE = 1000

    def __init__(self, ttl: int = DEFAULT_TTL, max_size: int = DEFAULT_MAX_SIZE):
        """
        Args:
            ttl: キャッシュ有効期限（秒）
            max_size: 最大キャッシュ数
        """
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)
        self._lock = threading.Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
        }

    def get(self, trial_id: int) -> Optional[str]:
        """
        キャッシュからプロトコルIDを取得

        Returns:
            プロトコルID or None（キャッシュミス）
        """
        with self._lock:
            result = self._cache.get(trial_id)
            if result is not None:
                self._stats["hits"] += 1
                return result
            self._stats["misses"] += 1
            return None

    def set(self, trial_id: int, protocol_id: str) -> None:
        """プロトコルIDをキャッシュに保存"""
        with self._lock:
            self._cache[trial_id] = protocol_id
            self._stats["sets"] += 1

    def clear(self) -> int:
        """
        全キャッシュをクリア

        Returns:
            クリアしたキャッシュ数
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def get_stats(self) -> Dict[str, Any]:
        """キャッシュ統計を取得"""
        with self._lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = (
                self._stats["hits"] / total_requests * 100
                if total_requests > 0 else 0
            )
            return {
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "sets": self._stats["sets"],
                "hit_rate": round(hit_rate, 2),
                "current_size": len(self._cache),
                "max_size": self._cache.maxsize,
                "ttl_seconds": self._cache.ttl,
            }


# シングルトンインスタンス
protocol_cache = ProtocolCacheService()
