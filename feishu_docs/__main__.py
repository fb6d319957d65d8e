from feishu_docs.cli import main

main()
