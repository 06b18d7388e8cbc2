#!/usr/bin/env python3
"""Build a sample opportunity batch and print it or submit it to the API."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

SEED_SOURCE = "seed_script"


def _in_days(now: datetime, days: int) -> str:
    return (now + timedelta(days=days)).isoformat()


def build_batch(now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    opportunities: list[dict[str, Any]] = [
        {
            "type": "internship",
            "title": "Software Engineering Intern",
            "apply_url": "https://careers.google.com/jobs/results/12345/",
            "city": "Bangalore",
            "country": "India",
            "work_style": "hybrid",
            "organization": "Google",
            "stipend": "50,000 INR/month",
            "duration": "6 months",
            "skills": ["Python", "JavaScript", "React"],
            "tags": ["software", "engineering", "paid", "tech"],
            "deadline": _in_days(now, 30),
            "is_featured": True,
            "is_verified": True,
        },
        {
            "type": "internship",
            "title": "Data Science Intern",
            "apply_url": "https://careers.microsoft.com/us/en/job/1234567/",
            "city": "Hyderabad",
            "country": "India",
            "work_style": "remote",
            "organization": "Microsoft",
            "stipend": "45,000 INR/month",
            "duration": "3 months",
            "skills": ["Python", "Machine Learning", "SQL", "Pandas"],
            "tags": ["data-science", "ml", "remote", "analytics"],
            "deadline": _in_days(now, 20),
            "is_verified": True,
        },
        {
            "type": "internship",
            "title": "Frontend Developer Intern",
            "apply_url": "https://www.amazon.jobs/en/jobs/2345678/",
            "city": "Mumbai",
            "country": "India",
            "work_style": "onsite",
            "organization": "Amazon",
            "stipend": "40,000 INR/month",
            "duration": "6 months",
            "skills": ["React", "TypeScript", "CSS", "HTML"],
            "tags": ["frontend", "react", "ui", "web"],
            "deadline": _in_days(now, 15),
        },
        {
            "type": "job",
            "title": "Junior Software Engineer",
            "apply_url": "https://careers.flipkart.com/opportunities/junior-sde",
            "city": "Bangalore",
            "country": "India",
            "work_style": "hybrid",
            "organization": "Flipkart",
            "salary": "8-12 LPA",
            "experience": "0-1 years",
            "skills": ["Java", "Spring Boot", "MySQL", "REST APIs"],
            "tags": ["backend", "java", "entry-level", "freshers"],
            "deadline": _in_days(now, 25),
            "is_verified": True,
            "is_featured": True,
        },
        {
            "type": "job",
            "title": "Frontend Developer",
            "apply_url": "https://careers.swiggy.com/job/frontend-developer-123",
            "city": "Bangalore",
            "country": "India",
            "work_style": "remote",
            "organization": "Swiggy",
            "salary": "6-10 LPA",
            "experience": "Freshers",
            "skills": ["React", "JavaScript", "Redux", "CSS"],
            "tags": ["frontend", "react", "remote", "freshers"],
            "deadline": _in_days(now, 20),
        },
        {
            "type": "hackathon",
            "title": "AI Hackathon 2026",
            "apply_url": "https://ai-hackathon-2026.devpost.com/",
            "city": "Online",
            "country": "India",
            "organization": "Devpost",
            "team_size": "2-4",
            "fees": "unpaid",
            "perks": "50,000 INR prize pool, certificates, mentorship",
            "event_date": _in_days(now, 45),
            "deadline": _in_days(now, 30),
            "tags": ["ai", "ml", "hackathon", "online", "free"],
            "domain": ["Artificial Intelligence", "Machine Learning", "Deep Learning"],
            "is_featured": True,
            "is_verified": True,
        },
        {
            "type": "hackathon",
            "title": "Web3 Hackathon",
            "apply_url": "https://www.hackerearth.com/challenges/hackathon/web3-hack/",
            "city": "Delhi",
            "country": "India",
            "organization": "HackerEarth",
            "team_size": "1-3",
            "fees": "unpaid",
            "perks": "1,00,000 INR prize and internship opportunities",
            "event_date": _in_days(now, 60),
            "deadline": _in_days(now, 40),
            "tags": ["web3", "blockchain", "crypto", "hackathon"],
            "domain": ["Blockchain", "Web3", "Cryptocurrency"],
        },
        {
            "type": "scholarship",
            "title": "Merit-cum-Means Scholarship 2026",
            "apply_url": "https://scholarships.gov.in/public/schemeGuidelines/MCM.pdf",
            "city": "All India",
            "country": "India",
            "organization": "Ministry of Education",
            "fees": "unpaid",
            "perks": "50,000 INR per year for 4 years and a book grant",
            "deadline": _in_days(now, 30),
            "tags": ["scholarship", "government", "undergraduate", "merit"],
            "domain": ["Education", "Financial Aid"],
            "is_verified": True,
        },
        {
            "type": "learning",
            "title": "Full Stack Web Development Bootcamp",
            "apply_url": "https://www.coursera.org/specializations/full-stack-react",
            "city": "Online",
            "country": "Global",
            "organization": "Coursera",
            "fees": "paid",
            "perks": "Certificate, portfolio projects, career support",
            "learning_type": "course",
            "event_date": _in_days(now, 20),
            "deadline": _in_days(now, 15),
            "tags": ["web-development", "full-stack", "online", "certificate"],
            "domain": ["Web Development", "Programming", "Software Engineering"],
        },
    ]
    return {"source": SEED_SOURCE, "opportunities": opportunities}


def submit_batch(base_url: str, batch: dict[str, Any], *, timeout: float = 10.0) -> dict[str, Any]:
    with httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout) as client:
        response = client.post("/opportunities/batch", json=batch)
        response.raise_for_status()
        return response.json()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the opportunity API with sample data.")
    parser.add_argument(
        "--api-url",
        default="http://localhost:5000",
        help="Base URL of a running API",
    )
    parser.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print the batch payload as JSON instead of submitting it",
    )
    args = parser.parse_args()

    batch = build_batch()
    if args.print_only:
        print(json.dumps(batch, indent=2))
        return 0

    try:
        body = submit_batch(args.api_url, batch)
    except httpx.HTTPError as exc:
        print(f"seed failed: {exc}", file=sys.stderr)
        return 1

    print(body.get("message", json.dumps(body)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
