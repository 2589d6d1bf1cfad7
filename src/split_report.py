from tabulate import tabulate
import pandas as pd


def split_rows(splits):
    return [
        {
            "#": i,
            "file": s.file_path,
            "offset": s.offset,
            "length": s.length,
            "end": s.end,
        }
        for i, s in enumerate(splits)
    ]


def verification_rows(results):
    return [
        {
            "file": r.path,
            "splits": len(r.split_counts),
            "records": r.total_records,
            "per split": r.records_per_split,
            "status": "OK" if r.ok else "; ".join(r.problems),
        }
        for r in results
    ]


def print_table(title, results):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)

    # split manifests arrive as frames
    if isinstance(results, pd.DataFrame):
        df = results.reset_index(drop=True)
        print(tabulate(df, headers="keys", tablefmt="fancy_grid", showindex=False))
        return

    if isinstance(results, list) and len(results) > 0:
        # split_rows / verification_rows give dicts; anything else prints headerless
        headers = "keys" if isinstance(results[0], dict) else ()
        print(tabulate(results, headers=headers, tablefmt="fancy_grid"))
        return

    print("(no rows)")
