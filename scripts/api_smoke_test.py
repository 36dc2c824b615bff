#!/usr/bin/env python3
"""
Smoke test script for a running movie database API
Registers a throwaway user and walks the main endpoints
"""

import sys
import time
import uuid
from typing import Any, Dict, List, Optional

import requests


class APITester:
    def __init__(self, base_url: str = "http://localhost:8080"):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.tests_passed = 0
        self.tests_failed = 0

    def log(self, message: str, level: str = "INFO"):
        colors = {
            "INFO": "\033[94m",
            "SUCCESS": "\033[92m",
            "ERROR": "\033[91m",
            "WARNING": "\033[93m",
            "END": "\033[0m",
        }
        print(f"{colors.get(level, '')}{level}: {message}{colors['END']}")

    def request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make API request and return status and decoded body"""
        try:
            response = self.session.request(method, f"{self.base_url}{endpoint}", timeout=30, **kwargs)
        except requests.RequestException as e:
            return {"status_code": 0, "data": {"error": str(e)}}
        return {
            "status_code": response.status_code,
            "data": response.json() if response.content else {},
        }

    def check(
        self,
        name: str,
        method: str,
        endpoint: str,
        expected_status: int = 200,
        expected_fields: Optional[List[str]] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """Run one request and record pass/fail"""
        self.log(f"Testing {name}...")
        result = self.request(method, endpoint, **kwargs)

        if result["status_code"] != expected_status:
            self.log(f"{name} failed: got {result['status_code']} {result['data']}", "ERROR")
            self.tests_failed += 1
            return result

        for field in expected_fields or []:
            if field not in result["data"]:
                self.log(f"{name} missing field: {field}", "ERROR")
                self.tests_failed += 1
                return result

        self.log(f"{name} passed", "SUCCESS")
        self.tests_passed += 1
        return result

    def test_public_endpoints(self):
        self.check("Root", "GET", "/", expected_fields=["message", "version", "endpoints"])
        self.check("Health", "GET", "/health", expected_fields=["status", "components"])
        self.check("Movies list", "GET", "/movies", params={"limit": 5}, expected_fields=["data", "meta"])
        self.check("Movie search", "GET", "/movies/search", params={"q": "the"}, expected_fields=["data", "meta"])
        self.check("Trending", "GET", "/movies/trending")
        self.check("Sync status", "GET", "/sync/status", expected_fields=["status"])

    def test_error_cases(self):
        self.check("Unknown movie", "GET", "/movies/999999999", expected_status=404)
        self.check("Excessive limit", "GET", "/movies", expected_status=422, params={"limit": 10000})
        self.check("Profile without token", "GET", "/users/profile", expected_status=401)

    def test_user_flow(self):
        suffix = uuid.uuid4().hex[:8]
        username = f"smoke_{suffix}"
        password = "Smoke1234!"

        self.check(
            "Register",
            "POST",
            "/users/register",
            expected_status=201,
            json={"username": username, "email": f"{username}@example.com", "password": password},
        )
        login = self.check(
            "Login",
            "POST",
            "/users/login",
            json={"username_or_email": username, "password": password},
            expected_fields=["access_token", "user"],
        )
        token = login["data"].get("access_token")
        if not token:
            return

        headers = {"Authorization": f"Bearer {token}"}
        self.check("Profile", "GET", "/users/profile", headers=headers, expected_fields=["username"])

        movies = self.request("GET", "/movies", params={"limit": 1})["data"].get("data", [])
        if not movies:
            self.log("No movies in the catalogue, skipping rating checks", "WARNING")
        else:
            movie_id = movies[0]["id"]
            self.check(
                "Rate movie",
                "POST",
                f"/ratings/movies/{movie_id}",
                expected_status=201,
                headers=headers,
                json={"rating": 8.5, "review": "Smoke test"},
            )
            self.check("Rating stats", "GET", f"/ratings/movies/{movie_id}/stats", expected_fields=["average"])
            self.check("Add to watchlist", "POST", f"/users/watchlist/{movie_id}", headers=headers)

    def test_performance(self):
        self.log("Testing response times...")
        start_time = time.time()
        result = self.request("GET", "/movies", params={"limit": 100})
        response_time = time.time() - start_time

        if result["status_code"] != 200:
            self.log("Performance test failed: request failed", "ERROR")
            self.tests_failed += 1
        else:
            level = "SUCCESS" if response_time < 5.0 else "WARNING"
            self.log(f"Movies page served in {response_time:.2f}s", level)
            self.tests_passed += 1

    def wait_for_api(self, max_attempts: int = 20) -> bool:
        """Wait for API to be available"""
        self.log("Waiting for API to be available...")

        for attempt in range(max_attempts):
            try:
                if requests.get(f"{self.base_url}/health", timeout=5).status_code == 200:
                    self.log("API is available", "SUCCESS")
                    return True
            except requests.RequestException:
                pass

            if attempt < max_attempts - 1:
                self.log(f"Attempt {attempt + 1}/{max_attempts} - waiting...")
                time.sleep(3)

        self.log("API is not available after waiting", "ERROR")
        return False

    def run_all_tests(self) -> bool:
        self.log("Starting movie database API smoke tests")
        print("=" * 50)

        if not self.wait_for_api():
            return False

        for test in (self.test_public_endpoints, self.test_error_cases, self.test_user_flow, self.test_performance):
            test()
            print()

        print("=" * 50)
        total_tests = self.tests_passed + self.tests_failed
        self.log(f"Tests Summary: {self.tests_passed}/{total_tests} passed")

        if self.tests_failed == 0:
            self.log("All tests passed!", "SUCCESS")
            return True
        self.log(f"{self.tests_failed} tests failed", "ERROR")
        return False


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8080"
    sys.exit(0 if APITester(base_url).run_all_tests() else 1)


if __name__ == "__main__":
    main()
