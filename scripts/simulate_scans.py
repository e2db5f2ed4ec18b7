import random, threading, time, requests

BASE = "http://127.0.0.1:5000"

# (username, password, checkpoint to scan at; None means the session default)
OPERATORS = [("cutter", "cut123", None), ("supervisor", "super123", "CP-002"), ("supervisor", "super123", "CP-003")]


def operator_loop(username, password, checkpoint_id, codes):
    s = requests.Session()
    r = s.post(f"{BASE}/api/login", json={"username": username, "password": password})
    print(username, "login", r.status_code)
    if checkpoint_id:
        s.post(f"{BASE}/api/session/checkpoint", json={"checkpoint_id": checkpoint_id})
    for code in random.sample(codes, min(3, len(codes))):
        r = s.post(f"{BASE}/api/scan/find", json={"code": code})
        if r.status_code != 200:
            print(username, code, r.status_code, r.json().get("error"))
            continue
        r = s.post(f"{BASE}/api/scan/confirm", json={"qr_code_id": code})
        print(username, code, r.status_code, r.json().get("message") or r.json().get("error"))
        time.sleep(random.uniform(0.3, 1.2))


admin = requests.Session()
admin.post(f"{BASE}/api/login", json={"username": "sysadmin", "password": "admin123"})
codes = [c["id"] for c in admin.get(f"{BASE}/api/qrcodes", params={"work_order": "WO-00125"}).json()]

threads = [threading.Thread(target=operator_loop, args=(*op, codes)) for op in OPERATORS]
[t.start() for t in threads]
[t.join() for t in threads]
