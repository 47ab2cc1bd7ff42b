#!/usr/bin/env python3
import argparse
import os
import sys

import requests


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Duplicate detection API demo")
    parser.add_argument("--document-id", type=str, help="Document to check for duplicates")
    parser.add_argument("--batch-id", type=str, help="Batch the document belongs to")
    parser.add_argument(
        "--cross-batch",
        action="store_true",
        help="Compare against every batch of the document's project",
    )
    parser.add_argument("--name-threshold", type=float, default=0.85)
    parser.add_argument("--address-threshold", type=float, default=0.90)
    parser.add_argument(
        "--top", type=int, default=5, help="Number of duplicates to display",
    )
    parser.add_argument(
        "--api-url",
        default=os.environ.get("DUPLICATE_API_URL", "http://localhost:8000"),
        help="Base URL of the duplicate detection API",
    )
    return parser.parse_args()


def call_detect(api_url: str, args: argparse.Namespace) -> dict:
    response = requests.post(
        f"{api_url}/detect-duplicates",
        json={
            "documentId": args.document_id,
            "batchId": args.batch_id,
            "checkCrossBatch": args.cross_batch,
            "thresholds": {
                "name": args.name_threshold,
                "address": args.address_threshold,
            },
        },
        timeout=120,
    )
    if response.status_code >= 400:
        print(f"Request failed ({response.status_code}): {response.json().get('error')}")
        sys.exit(1)
    return response.json()


def main() -> None:
    args = parse_args()

    if not args.document_id or not args.batch_id:
        print("Provide --document-id and --batch-id.")
        sys.exit(1)

    result = call_detect(args.api_url, args)

    print(f"Checked {result['total_checked']} documents")
    if result.get("truncated"):
        print("Candidate set was truncated; some documents were not compared.")
    if result.get("storage_failures"):
        print(f"{result['storage_failures']} findings could not be saved.")
    duplicates = result.get("duplicates", [])
    if not duplicates:
        print(result.get("message") or "No potential duplicates found.")
        return

    for idx, duplicate in enumerate(duplicates[: args.top], start=1):
        fields = duplicate["duplicate_fields"]
        print("-" * 80)
        print(f"Duplicate {idx}: {duplicate['duplicate_document_id']} ({duplicate['duplicate_type']})")
        print(f"  Overall similarity: {duplicate['similarity_score']:.3f}")
        print(f"  Name: {fields['name']:.3f}  {fields['current_name']!r} vs {fields['candidate_name']!r}")
        print(
            f"  Address: {fields['address']:.3f}  "
            f"{fields['current_address']!r} vs {fields['candidate_address']!r}"
        )
    print("-" * 80)


if __name__ == "__main__":
    main()
