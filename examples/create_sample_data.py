"""Crée une paire de fichiers de démonstration (Excel + CSV) pour VeriDiff."""

import json
from pathlib import Path

import pandas as pd

DATA_DIR = Path(__file__).parent / "data"
DATA_DIR.mkdir(exist_ok=True)

ledger = pd.DataFrame({
    "ID": [1001, 1002, 1003, 1004],
    "Customer Name": ["Dupont SA", "Martin & Fils", "Bernard", "Leroy SARL"],
    "Amount": [1250.00, 89.90, 430.10, 15.00],
    "Date": ["2024-01-05", "2024-01-09", "2024-01-12", "2024-01-20"],
})

export = pd.DataFrame({
    "id": [1001, 1002, 1003, 1004],
    "customer_name": ["Dupont SA", "Martin et Fils", "Bernard", "Leroy SARL"],
    "amount": [1250.004, 89.90, 431.10, 15.00],
    "date": ["2024-01-05", "2024-01-09", "2024-01-12", "2024-01-21"],
})

ledger.to_excel(DATA_DIR / "ledger.xlsx", index=False, sheet_name="Ledger", engine="openpyxl")
export.to_csv(DATA_DIR / "export.csv", index=False)

config = {
    "file1": "ledger.xlsx",
    "file2": "export.csv",
    "combination": "excel_csv",
    "alignment": "keyed",
    "key_field": "ID",
    "auto_detect_amounts": True,
    "output": "resultats.xlsx",
}
(DATA_DIR / "config.json").write_text(json.dumps(config, indent=2), encoding="utf-8")
print(f"Fichiers créés dans {DATA_DIR}")
