"""
Order Service — 注文確定と在庫整合性エンジン

注文ヘッダ・明細・在庫減算を 1 つのトランザクションで確定する。
"""
