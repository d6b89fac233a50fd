import pymysql

# MySQL/TiDB deployments use PyMySQL as the MySQLdb driver
pymysql.version_info = (2, 2, 7, "final", 0)
pymysql.install_as_MySQLdb()
