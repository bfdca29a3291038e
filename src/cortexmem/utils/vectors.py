import uuid
import time
import json
import struct
import numpy as np
from typing import List, Union, Any, Sequence

def now() -> int:
    return int(time.time() * 1000)

def rid() -> str:
    return str(uuid.uuid4())

def cos_sim(a: Union[Sequence[float], np.ndarray], b: Union[Sequence[float], np.ndarray]) -> float:
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape or a.size == 0:
        return 0.0

    dot = float(np.dot(a, b))
    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))

    d = na * nb
    return dot / d if d else 0.0

def cos_sim_many(q: Sequence[float], mat: np.ndarray) -> np.ndarray:
    # rows of mat against q, zero-norm rows score 0
    qv = np.asarray(q, dtype=np.float32)
    qn = float(np.linalg.norm(qv))
    if qn == 0 or mat.size == 0:
        return np.zeros(len(mat), dtype=np.float32)
    norms = np.linalg.norm(mat, axis=1) * qn
    dots = mat @ qv
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

def normalize(v: Sequence[float]) -> List[float]:
    arr = np.asarray(v, dtype=np.float32)
    n = float(np.linalg.norm(arr))
    return (arr / n).tolist() if n else arr.tolist()

def j(x: Any) -> str:
    return json.dumps(x)

def p(x: str) -> Any:
    return json.loads(x) if x else []

def vec_to_buf(v: Sequence[float]) -> bytes:
    return struct.pack(f"{len(v)}f", *v)

def buf_to_vec(buf: bytes) -> List[float]:
    cnt = len(buf) // 4
    return list(struct.unpack(f"{cnt}f", buf))
