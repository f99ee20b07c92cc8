"""
Region templates (data only).

Each entry is a known document layout: the strings that must appear on page 1
for the layout to apply, and the rectangles (PDF points, origin bottom-left,
1-based page numbers) where each field's value is written.

Add a layout by adding an entry here or calling
`fieldimport.services.regions.register_region_template()`; matching code
never needs to change.
"""


REGION_TEMPLATES = {
    "SAFE": {
        "fingerprint": [
            "SAFE (Simple Agreement for Future Equity)",
            "Investor",
        ],
        "pages": [
            {
                "number": 1,
                "fields": {
                    "Company Name": {"x": 130, "y": 580, "w": 320, "h": 24},
                    "Investor Name": {"x": 130, "y": 540, "w": 320, "h": 24},
                    "Purchase Amount": {"x": 420, "y": 505, "w": 180, "h": 24},
                    "Date of Safe": {"x": 420, "y": 470, "w": 180, "h": 24},
                    "Company State of Incorporation": {"x": 130, "y": 505, "w": 260, "h": 24},
                    "Governing Law Jurisdiction": {"x": 130, "y": 440, "w": 260, "h": 24},
                    "Company Authorized Representative Name": {"x": 130, "y": 320, "w": 320, "h": 24},
                    "Company Authorized Representative Title": {"x": 130, "y": 295, "w": 320, "h": 24},
                },
            }
        ],
        "units": "points",
    },
}
